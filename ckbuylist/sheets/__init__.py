"""CK Buylist: Google Sheets Layer"""
