"""
Integrations app - outbound webhook integrations for loan applications.

Operators configure destinations and field mappings; application events
compile a payload per integration and deliver it with retries, recording
every attempt in the execution log.
"""
