"""Services domain - eligible catalogue, business services and add-ons"""
