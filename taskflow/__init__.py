"""TaskFlow: local-first GTD task organizer with WebDAV sync."""
