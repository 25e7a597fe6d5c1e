"""Autoquote: personal auto insurance quoting and policy-servicing backend.

Autoquote turns a customer's identifying data and coverage choices into a
quoted policy: a Product/Agreement/Policy record chain in ``QUOTED`` status,
plus the coverage detail, limit, and deductible rows that describe what the
customer selected for each insured vehicle.
"""

__version__ = "0.1.0"
