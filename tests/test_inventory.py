"""Tests for docker images/ps output parsing."""

from datetime import timedelta

from docker_pipeline.client.inventory import build_container_inventory, parse_docker_timestamp

IMAGES = [
    '{"ID": "sha256:aaa", "Repository": "ghcr.io/acme/api", "Tag": "1.0", "Size": "12MB"}',
    '{"ID": "sha256:bbb", "Repository": "<none>", "Tag": ""}',
]


class TestParseDockerTimestamp:
    """Tests for parse_docker_timestamp."""

    def test_docker_format(self):
        created = parse_docker_timestamp("2024-01-02 15:04:05 +0000 UTC")
        assert (created.year, created.month, created.day, created.hour) == (2024, 1, 2, 15)
        assert created.utcoffset() == timedelta(0)

    def test_offset(self):
        created = parse_docker_timestamp("2024-01-02 15:04:05 +0200 CEST")
        assert created.utcoffset() == timedelta(hours=2)

    def test_missing_or_malformed(self):
        assert parse_docker_timestamp(None) is None
        assert parse_docker_timestamp("") is None
        assert parse_docker_timestamp("yesterday") is None
        assert parse_docker_timestamp("2024-13-45 99:00:00 +0000") is None


class TestBuildContainerInventory:
    """Tests for build_container_inventory."""

    def test_joins_digest_by_image(self):
        containers = [
            '{"Names": "api", "Image": "ghcr.io/acme/api:1.0", "State": "exited",'
            ' "Status": "Exited (0) 1 hour ago", "CreatedAt": "2024-01-02 15:04:05 +0000 UTC"}'
        ]

        infos = build_container_inventory(IMAGES, containers)

        assert len(infos) == 1
        assert infos[0].name == "api"
        assert infos[0].digest == "sha256:aaa"
        assert infos[0].state == "exited"
        assert infos[0].status == "Exited (0) 1 hour ago"

    def test_unknown_image_only_when_running(self):
        """Test that containers of unknown images are kept only while running."""
        containers = [
            '{"Names": "web", "Image": "nginx:latest", "State": "running"}',
            '{"Names": "job", "Image": "busybox:latest", "State": "exited"}',
        ]

        infos = build_container_inventory(IMAGES, containers)

        assert [info.name for info in infos] == ["web"]
        assert infos[0].digest is None
        assert infos[0].created is None

    def test_skips_incomplete_and_unparseable_lines(self):
        containers = [
            "",
            "not json",
            '{"Names": "", "Image": "ghcr.io/acme/api:1.0", "State": "running"}',
            '{"Names": "api", "Image": "ghcr.io/acme/api:1.0", "State": "running"}',
        ]
        infos = build_container_inventory(IMAGES + ["{broken"], containers)
        assert [info.name for info in infos] == ["api"]
