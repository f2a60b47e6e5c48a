"""
Accounts - where money lives and how much is in each place
"""
