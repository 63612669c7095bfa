"""
School inventory service.

Item catalog, borrow requests with an approval lifecycle, and an audit log.
"""
