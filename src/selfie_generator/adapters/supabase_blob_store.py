"""Supabase Storage-backed blob store."""

from dataclasses import dataclass

from supabase import Client

from selfie_generator.services.storage import BlobStore


@dataclass
class SupabaseBlobStore(BlobStore):
    """Stores session images in a private Supabase Storage bucket."""

    client: Client
    bucket: str
    list_page_size: int = 1000

    def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Upload bytes, overwriting an existing object at the path."""
        self.client.storage.from_(self.bucket).upload(
            path=path,
            file=data,
            file_options={"content-type": content_type, "upsert": "true"},
        )

    def download(self, path: str) -> bytes:
        """Download an object."""
        return self.client.storage.from_(self.bucket).download(path)

    def remove(self, paths: list[str]) -> None:
        """Remove objects; missing objects are ignored by Storage."""
        if paths:
            self.client.storage.from_(self.bucket).remove(paths)

    def list_paths(self, prefix: str) -> list[str]:
        """List object paths directly under a folder prefix, page by page."""
        bucket = self.client.storage.from_(self.bucket)
        paths: list[str] = []
        offset = 0
        while True:
            options = {
                "limit": self.list_page_size,
                "offset": offset,
                "sortBy": {"column": "name", "order": "asc"},
            }
            entries = bucket.list(prefix, options) or []
            paths.extend(
                f"{prefix}/{entry['name']}"
                for entry in entries
                if entry.get("name") and entry.get("id")
            )
            if len(entries) < self.list_page_size:
                return paths
            offset += len(entries)
