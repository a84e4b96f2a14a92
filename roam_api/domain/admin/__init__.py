"""Admin console domain - business approval, moderation, content and reporting"""
