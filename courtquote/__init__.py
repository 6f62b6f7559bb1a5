"""
Court quotation pricing service.

Prices sports-court construction requests (sport, size tier, dimensions,
add-ons) into itemized quotations that stay fixed once issued.
"""
