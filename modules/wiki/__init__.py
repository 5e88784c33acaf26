"""Per-wiki orchestration package.

Submodules:
- settings: WikiConfig and the wiki .env file
- php: PHP settings rendering
- db: MariaDB helpers (root password, per-wiki DB/user, dump import)
- sqldump: dump decompression, validation, table-prefix detection/stripping
- importer: SQL and XML import drivers
- images: images archive import
- installer: create wizard and deploy engine
- oauth: PluggableAuth/OpenIDConnect installer and OAuth settings
- search: ExtendedSearch index rebuild
- upgrade: version lookup and all-wiki upgrade
- backup: database dump, images and settings backup
"""

# Intentionally minimal; logic lives in submodules and __main__.
