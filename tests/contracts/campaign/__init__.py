"""
Campaign Service Contract Module

data_contract.py: test data factories producing the service's own models.
"""
