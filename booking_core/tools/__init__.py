"""Service catalog, directories, notifications and the booking service facade."""
