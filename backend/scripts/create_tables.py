import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)) + '/..')

from db import apply_schema, get_conn
from settings import settings

print('Connecting to', settings.db_url)
with get_conn() as conn:
    apply_schema(conn)
print('DDL applied')
