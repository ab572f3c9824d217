"""Communication with HID and USB bench instruments."""
