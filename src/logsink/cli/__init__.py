"""
Operator command line for logsink databases.
"""
