"""Service layer — the directory engines and the façade.

Engines raise typed :mod:`orgdir.domain.errors`; the façade turns them into
ServiceResult.  Services may import from domain, config and infrastructure,
never from commands or output.
"""
