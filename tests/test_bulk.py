from moto import mock_aws
from scoped_s3fs.bulk import BulkOperationError
from scoped_s3fs.fs import S3FS
from scoped_s3fs.listing import EntryKind
from scoped_s3fs.s3client import ObjectNotFound
from scoped_s3fs.s3client import S3OperationError

import boto3
import pytest
import threading


BODY = b"this is test string"


@pytest.fixture
def s3_env():
    with mock_aws():
        boto3.client("s3", region_name="us-east-1").create_bucket(Bucket="test-bucket")
        yield


def _make_fs(**kwargs):
    kwargs.setdefault("region", "us-east-1")
    return S3FS.from_config(bucket_name="test-bucket", **kwargs)


@pytest.fixture
def fs(s3_env):
    return _make_fs()


@pytest.fixture
def paged_fs(s3_env):
    """Two keys per listing page, so small trees span several pages."""
    return _make_fs(namespace="tenant", page_size=2, max_workers=4)


def _raw_keys(prefix=""):
    s3 = boto3.client("s3", region_name="us-east-1")
    paginator = s3.get_paginator("list_objects_v2")
    keys = []
    for page in paginator.paginate(Bucket="test-bucket", Prefix=prefix):
        keys.extend(obj["Key"] for obj in page.get("Contents", []))
    return sorted(keys)


def _fail_copies_of(fs, names):
    """Make copy_object fail for source keys ending in one of ``names``."""
    original = fs.client.copy_object
    attempted = []
    lock = threading.Lock()

    def copy_object(src_key, dest_key, metadata=None):
        with lock:
            attempted.append(src_key)
        if src_key.rsplit("/", 1)[-1] in names:
            raise S3OperationError(f"S3 copy failed for key={src_key}: AccessDenied")
        return original(src_key, dest_key, metadata)

    fs.client.copy_object = copy_object
    return attempted


class TestBulkDelete:
    def test_delete_subtree(self, fs):
        fs.put("/keep", BODY)
        fs.makedir("/dir")
        fs.put("/dir/a", BODY)
        fs.put("/dir/sub/b", BODY)

        assert fs.delete("/dir/") == 3
        assert _raw_keys() == ["keep"]

    def test_delete_root_empties_scope(self, paged_fs, s3_env):
        other = _make_fs(namespace="other")
        other.put("/f", BODY)
        for i in range(5):
            paged_fs.put(f"/d{i}/f", BODY)
        paged_fs.makedir("/empty")

        assert paged_fs.delete("/") == 6
        assert paged_fs.list("/") == []
        assert _raw_keys() == ["other/f"]

    def test_delete_missing_prefix(self, fs):
        assert fs.delete("/nothing/") == 0

    def test_delete_does_not_touch_sibling_prefix(self, fs):
        fs.put("/dir/a", BODY)
        fs.put("/dir2/a", BODY)
        fs.delete("/dir/")
        assert _raw_keys() == ["dir2/a"]

    def test_failed_batch_stops_before_next_page(self, paged_fs):
        for i in range(5):
            paged_fs.put(f"/d/f{i}", BODY)
        calls = []

        def delete_objects(keys):
            calls.append(keys)
            raise S3OperationError("S3 batch delete failed: AccessDenied")

        paged_fs.client.delete_objects = delete_objects
        with pytest.raises(BulkOperationError) as exc_info:
            paged_fs.delete("/d/")
        assert len(calls) == 1
        assert exc_info.value.failed_paths == ["/d/f0", "/d/f1"]
        assert len(_raw_keys("tenant/")) == 5

    def test_refused_keys_fail(self, paged_fs):
        paged_fs.put("/d/f0", BODY)
        paged_fs.client.delete_objects = lambda keys: [(keys[0], "AccessDenied")]
        with pytest.raises(BulkOperationError) as exc_info:
            paged_fs.delete("/d/")
        assert exc_info.value.failed_paths == ["/d/f0"]
        assert exc_info.value.failures[0][1].code == "AccessDenied"


class TestBulkCopy:
    def test_copy_into_directory(self, fs):
        fs.put("/testfile", BODY)
        fs.makedir("/bulkcopy_a")
        fs.copy("/testfile", "/bulkcopy_a/testfile")
        fs.makedir("/bulkcopy_b")

        assert fs.copy("/bulkcopy_a/", "/bulkcopy_b/") == 2
        assert fs.read_bytes("/bulkcopy_b/bulkcopy_a/testfile") == BODY
        assert [e.path for e in fs.list("/bulkcopy_b/")] == ["/bulkcopy_b/bulkcopy_a/"]

    def test_copy_nested_subtree_keeps_only_root_name(self, fs):
        fs.put("/x/a/f", b"f")
        fs.put("/x/a/sub/g", b"g")
        fs.put("/x/other", b"o")

        fs.copy("/x/a/", "/b/")
        assert _raw_keys("b/") == ["b/a/f", "b/a/sub/g"]
        assert fs.read_bytes("/b/a/sub/g") == b"g"

    def test_destination_without_trailing_slash(self, fs):
        fs.put("/a/f", BODY)
        fs.copy("/a/", "/b")
        assert fs.read_bytes("/b/a/f") == BODY

    def test_source_kept(self, fs):
        fs.put("/a/f", BODY)
        fs.copy("/a/", "/b/")
        assert fs.read_bytes("/a/f") == BODY

    def test_empty_directory_marker_recreated(self, fs):
        fs.makedir("/a/empty")
        fs.copy("/a/", "/b/")
        entries = fs.list("/b/a/")
        assert [(e.path, e.kind) for e in entries] == [
            ("/b/a/empty/", EntryKind.DIRECTORY)
        ]

    def test_virtual_directory_without_marker_not_recreated(self, fs):
        fs.put("/a/f", BODY)
        fs.copy("/a/", "/b/")
        assert _raw_keys("b/") == ["b/a/f"]

    def test_copy_with_metadata(self, fs):
        fs.put("/a/f", BODY, metadata={"owner": "alice"})
        fs.put("/a/g", BODY)
        fs.copy("/a/", "/b/", {"reviewed": "yes"})
        assert fs.info("/b/a/f").metadata == {"reviewed": "yes"}
        assert fs.info("/b/a/g").metadata == {"reviewed": "yes"}

    def test_domain_recurring_in_keys(self, s3_env):
        fs = _make_fs(namespace="tenant", domain="data")
        fs.put("/data/data.txt", BODY)
        fs.put("/data/nested/data", BODY)

        fs.copy("/data/", "/backup/data/")
        assert _raw_keys("tenant/data/backup/") == [
            "tenant/data/backup/data/data/data.txt",
            "tenant/data/backup/data/data/nested/data",
        ]

    def test_copy_spans_pages(self, paged_fs):
        for i in range(7):
            paged_fs.put(f"/src/f{i}", str(i).encode())
        assert paged_fs.copy("/src/", "/dst/") == 7
        for i in range(7):
            assert paged_fs.read_bytes(f"/dst/src/f{i}") == str(i).encode()

    def test_sibling_destination_allowed(self, fs):
        fs.put("/a/f", BODY)
        assert fs.copy("/a/", "/ab/") == 1
        assert fs.read_bytes("/ab/a/f") == BODY

    def test_prefix_without_leading_slash(self, fs):
        fs.put("/x/a/f", BODY)
        fs.copy_bulk("x/a/", "/b/")
        assert _raw_keys("b/") == ["b/a/f"]

    def test_copy_root_into_itself_rejected(self, paged_fs):
        for name in ("a", "b", "c"):
            paged_fs.put(f"/{name}", BODY)
        with pytest.raises(ValueError, match="inside the source"):
            paged_fs.copy("/", "/backup/")
        assert _raw_keys() == ["tenant/a", "tenant/b", "tenant/c"]

    def test_copy_into_own_subdirectory_rejected(self, paged_fs):
        for name in ("f", "g", "h"):
            paged_fs.put(f"/a/{name}", BODY)
        with pytest.raises(ValueError):
            paged_fs.copy("/a/", "/a/y/")
        with pytest.raises(ValueError):
            paged_fs.copy("/a/", "/a/y")
        assert _raw_keys() == ["tenant/a/f", "tenant/a/g", "tenant/a/h"]

    def test_many_objects_bounded_workers(self, s3_env):
        fs = _make_fs(max_workers=3)
        for i in range(30):
            fs.put(f"/src/f{i:02}", BODY)
        assert fs.copy("/src/", "/dst/") == 30
        assert len(_raw_keys("dst/")) == 30


class TestBulkCopyFailures:
    def test_best_effort_visits_every_page(self, paged_fs):
        for i in range(6):
            paged_fs.put(f"/src/a{i}", BODY)
        attempted = _fail_copies_of(paged_fs, {"a1", "a4"})

        with pytest.raises(BulkOperationError) as exc_info:
            paged_fs.copy("/src/", "/dst/")

        error = exc_info.value
        assert sorted(error.failed_paths) == ["/src/a1", "/src/a4"]
        assert "some files failed" in str(error)
        assert len(attempted) == 6
        assert _raw_keys("tenant/dst/") == [
            f"tenant/dst/src/a{i}" for i in (0, 2, 3, 5)
        ]

    def test_fail_fast_stops_after_failing_page(self, s3_env):
        fs = _make_fs(page_size=2, fail_fast=True)
        for i in range(6):
            fs.put(f"/src/a{i}", BODY)
        attempted = _fail_copies_of(fs, {"a1"})

        with pytest.raises(BulkOperationError) as exc_info:
            fs.copy("/src/", "/dst/")

        assert exc_info.value.failed_paths == ["/src/a1"]
        assert sorted(attempted) == ["src/a0", "src/a1"]
        assert _raw_keys("dst/") == ["dst/src/a0"]

    def test_failure_carries_original_exception(self, fs):
        fs.put("/src/a0", BODY)
        _fail_copies_of(fs, {"a0"})
        with pytest.raises(BulkOperationError) as exc_info:
            fs.copy("/src/", "/dst/")
        path, exc = exc_info.value.failures[0]
        assert path == "/src/a0"
        assert "AccessDenied" in str(exc)

    def test_simultaneous_failures_all_recorded(self, s3_env):
        fs = _make_fs(max_workers=8)
        for i in range(20):
            fs.put(f"/src/f{i:02}", BODY)
        _fail_copies_of(fs, {f"f{i:02}" for i in range(20)})
        with pytest.raises(BulkOperationError) as exc_info:
            fs.copy("/src/", "/dst/")
        assert len(exc_info.value.failures) == 20


class TestBulkMove:
    def test_move_subtree(self, paged_fs):
        paged_fs.makedir("/a")
        for i in range(3):
            paged_fs.put(f"/a/f{i}", BODY)

        paged_fs.move("/a/", "/b/")
        assert paged_fs.list("/a/") == []
        assert not paged_fs.path_exists("/a/")
        assert sorted(e.name for e in paged_fs.list("/b/a/")) == ["f0", "f1", "f2"]

    def test_failed_copy_leaves_source_intact(self, fs):
        for i in range(3):
            fs.put(f"/a/f{i}", BODY)
        _fail_copies_of(fs, {"f1"})

        with pytest.raises(BulkOperationError):
            fs.move("/a/", "/b/")
        assert _raw_keys("a/") == ["a/f0", "a/f1", "a/f2"]
        assert _raw_keys("b/") == ["b/a/f0", "b/a/f2"]

    def test_failed_delete_leaves_both_copies(self, fs):
        fs.put("/a/f", BODY)

        def delete_objects(keys):
            raise S3OperationError("S3 batch delete failed: AccessDenied")

        fs.client.delete_objects = delete_objects
        with pytest.raises(BulkOperationError):
            fs.move("/a/", "/b/")
        assert fs.read_bytes("/a/f") == BODY
        assert fs.read_bytes("/b/a/f") == BODY

    def test_single_move_of_missing_source(self, fs):
        with pytest.raises(ObjectNotFound):
            fs.move("/missing", "/dst")

    def test_move_into_own_subdirectory_rejected(self, fs):
        fs.put("/a/f", BODY)
        fs.put("/a/g", BODY)
        with pytest.raises(ValueError, match="inside the source"):
            fs.move("/a/", "/a/sub/")
        assert _raw_keys() == ["a/f", "a/g"]

    def test_move_onto_itself_rejected(self, fs):
        fs.put("/x/a/f", BODY)
        with pytest.raises(ValueError):
            fs.move("/x/a/", "/x/")
        assert _raw_keys() == ["x/a/f"]

    def test_move_to_sibling_allowed(self, paged_fs):
        for i in range(3):
            paged_fs.put(f"/a/f{i}", BODY)
        paged_fs.move("/a/", "/ab/")
        assert _raw_keys() == [f"tenant/ab/a/f{i}" for i in range(3)]
