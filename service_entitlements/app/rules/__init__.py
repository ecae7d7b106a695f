"""
Entitlement rules package.

- models: evaluation value types (context, counts, results, summary) and
  the HTTP request/response models.
- engine: the EntitlementEvaluator and its static action table.

The evaluator is pure; all document-store and billing I/O happens in the
limit checker and subscription resolver that feed it.
"""
