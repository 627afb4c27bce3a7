"""tasks/ -- Task records, their store, and the authorization-aware access layer.

Layer rule: tasks/ may import from core/ and auth/ (for Principal/Role and the
UserStore used to render owner names). It does NOT import from api/.
"""
