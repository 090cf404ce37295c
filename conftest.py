import os

# Never poll real USB hardware or authorize host devices during tests
os.environ.setdefault("WATCHDOG_INTERVAL_SECS", "0")
os.environ.setdefault("USB_AUTHORIZED_DEVICES", "[]")
os.environ.setdefault("LOG_LEVEL", "WARNING")
