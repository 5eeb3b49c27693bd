import io
import os
import ZConfig


SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schema.xml")

_schema = None


class S3FSFactory:
    """ZConfig factory for S3FS."""

    def __init__(self, config):
        self.config = config

    def open(self):
        from scoped_s3fs.fs import S3FS

        config = self.config
        return S3FS.from_config(
            bucket_name=config.bucket_name,
            region=config.region,
            namespace=config.namespace or "",
            domain=config.domain or "",
            endpoint_url=config.endpoint_url,
            path_style=config.path_style,
            static_credentials=config.static_credentials,
            access_key=config.access_key,
            secret_key=config.secret_key,
            use_ssl=config.use_ssl,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            page_size=config.page_size,
            max_workers=config.max_workers,
            fail_fast=config.fail_fast,
        )


def get_schema():
    global _schema
    if _schema is None:
        with open(SCHEMA_PATH) as f:
            _schema = ZConfig.loadSchemaFile(f)
    return _schema


def fs_from_file(fileobj):
    config, _handler = ZConfig.loadConfigFile(get_schema(), fileobj)
    return config.s3fs.open()


def fs_from_string(text):
    return fs_from_file(io.StringIO(text))


def fs_from_path(path):
    with open(path) as f:
        return fs_from_file(f)
