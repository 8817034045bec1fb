"""Payment allocation and credit ledger.

Receives customer payments, settles open invoices oldest-due first, turns
overpayments into reusable credits and keeps every customer's ledger
reconcilable.
"""
