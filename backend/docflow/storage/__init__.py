from docflow.storage.blob_store import BlobStore, split_path

__all__ = ["BlobStore", "split_path"]
