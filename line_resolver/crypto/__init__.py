"""Cipher contexts for the envelope, cloud-list and asset schemes. No key material is shared between them."""
