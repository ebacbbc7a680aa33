# base/storage/artifact_store.py

import os
import json
import logging
import aiofiles
from typing import Optional

from sites.models import SiteArtifact
from base.utils.sanitize import safe_filename

logger = logging.getLogger("umkm.storage.artifacts")


class ArtifactStore:
    """One JSON document per business: the latest SiteArtifact."""

    def __init__(self, base_dir="/tmp/umkm_sites"):
        self.base_dir = base_dir
        os.makedirs(self.base_dir, exist_ok=True)
        try:
            os.chmod(self.base_dir, 0o700)
        except OSError:
            logger.debug("could not chmod %s", self.base_dir)

    def path_for(self, business_id: str) -> str:
        dest = os.path.realpath(os.path.join(self.base_dir, f"{safe_filename(business_id)}.json"))
        base = os.path.realpath(self.base_dir)
        if not dest.startswith(base + os.sep):
            raise ValueError("invalid destination path")
        return dest

    async def save(self, business_id: str, artifact: SiteArtifact) -> str:
        dest = self.path_for(business_id)
        tmp = dest + ".tmp"
        async with aiofiles.open(tmp, "w", encoding="utf-8") as fh:
            await fh.write(json.dumps(artifact.to_doc(), ensure_ascii=False))
        os.replace(tmp, dest)
        logger.info("Saved artifact v%d for %s", artifact.version, business_id)
        return dest

    async def load(self, business_id: str) -> Optional[SiteArtifact]:
        dest = self.path_for(business_id)
        if not os.path.exists(dest):
            return None
        async with aiofiles.open(dest, "r", encoding="utf-8") as fh:
            raw = await fh.read()
        return SiteArtifact.model_validate(json.loads(raw))
