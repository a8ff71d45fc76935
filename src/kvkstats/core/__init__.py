"""Platform-independent core: backend client, media encoding, registration flow, exports."""
