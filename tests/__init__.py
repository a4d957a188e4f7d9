"""
styleprobe Tests

Run all tests:
    pytest tests/ -v

Run specific test file:
    pytest tests/test_server.py -v

Skip integration tests (no Chrome required):
    pytest tests/ -v -m "not integration"
"""
