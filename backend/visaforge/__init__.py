"""
VisaForge API package
"""
