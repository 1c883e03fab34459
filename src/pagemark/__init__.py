"""pagemark - terminal e-book reader with WebDAV progress sync."""
