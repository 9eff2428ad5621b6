"""Cross-domain helpers: errors, notifications and validators"""
