"""
sifisctl - command-line client for the SIFIS-Home runtime.
"""
