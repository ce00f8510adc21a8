"""Access control for QueryDesk.

Two layers:
- Role capability table (who may create users, manage connections, run SQL)
- Lexical read-only classification for roles limited to read-only SQL
"""
