"""skillforge command line interface"""
