"""Remote upload targets (Notion, Google Drive, OneDrive)."""
