"""
Procurement modules: requisitions, quotations, invoices, categories,
messaging and invitations.  Each package owns its DTOs, ORM models, workflow
declaration (where stateful) and service facade.
"""
