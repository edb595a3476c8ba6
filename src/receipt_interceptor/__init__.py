"""Print spool receipt interceptor."""
