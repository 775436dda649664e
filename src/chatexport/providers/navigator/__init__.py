"""Browser navigators used for multi-conversation scope scans."""
