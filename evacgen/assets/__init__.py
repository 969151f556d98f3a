"""Local asset collections.

Module split:
    - `locator`: choose facility and crowd filenames.
    - `uploader`: read asset bytes and push them to remote storage.
"""
