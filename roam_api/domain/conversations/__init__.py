"""Conversations domain - booking conversation lists and read state"""
