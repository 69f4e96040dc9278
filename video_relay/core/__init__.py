"""Infrastructure clients: Google Drive, service account credentials and Redis."""
