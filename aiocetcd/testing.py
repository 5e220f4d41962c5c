import os

def test_mode() -> bool:
    return os.getenv('CETCD_TESTING', '').lower() in ('1', 'true', 'yes')
