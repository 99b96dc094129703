from malware_analyst.utils.hashing import normalize_hash, sha256_bytes, sha256_fileobj
