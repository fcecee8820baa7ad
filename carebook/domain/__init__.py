"""
Domain packages for CareBook.

access        - roles, principals and the access guard
session       - client-side session store and auth backends
providers     - read-only provider directory
scheduling    - slot availability
booking       - multi-step booking workflow
appointments  - appointment store and lifecycle state machine
"""
