"""Tests for the redis-operator CLI commands."""

from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from operator_core.cli.main import app
from operator_core.cli.subject_factory import create_reconciler
from operator_core.config import OperatorSettings
from operator_protocols import Role
from operator_redis import ProbeUnreachableError, TopologyProbe
from operator_redis.topology import ClusterTopology
from operator_redis.types import ClusterNodeView, LinkState

runner = CliRunner()

MANIFEST = """\
metadata:
  name: cache
spec:
  clusterSize: 3
  redisFollower:
    replicas: 1
"""


def _topology() -> ClusterTopology:
    leader = ClusterNodeView(
        id="e7d1eecce10fd6bb5eb35b9f99a514335d9ba9ca",
        address="10.0.0.1:6379",
        role=Role.LEADER,
        link_state=LinkState.CONNECTED,
        flags=frozenset({"myself", "master"}),
        slots=((0, 16383),),
    )
    follower = ClusterNodeView(
        id="67ed2db8d677e59ec4a4cefb06858cf2a1a89fa1",
        address="10.0.1.1:6379",
        role=Role.FOLLOWER,
        link_state=LinkState.DISCONNECTED,
        flags=frozenset({"slave", "fail"}),
        master_id=leader.id,
    )
    return ClusterTopology.from_nodes([leader, follower], source="10.0.0.1:6379")


class TestValidate:
    """Tests for the validate command."""

    def test_valid_manifest(self, tmp_path):
        path = tmp_path / "cache.yaml"
        path.write_text(MANIFEST)

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 0
        assert "Leaders: 3" in result.output
        assert "Followers: 1" in result.output
        assert "Total replicas: 4" in result.output

    def test_invalid_manifest(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("metadata: {}\n")

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Invalid" in result.output

    def test_zero_leaders_warning(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("metadata:\n  name: empty\nspec:\n  clusterSize: 0\n")

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 0
        assert "never be formed" in result.output


class TestTopology:
    """Tests for the topology command."""

    def test_prints_nodes_and_summary(self):
        with patch.object(TopologyProbe, "observe", AsyncMock(return_value=_topology())):
            result = runner.invoke(app, ["topology", "10.0.0.1:6379"])

        assert result.exit_code == 0
        assert "e7d1eecc" in result.output
        assert "2 nodes (1 leaders, 1 followers)" in result.output
        assert "1 unhealthy" in result.output

    def test_json_output(self):
        with patch.object(TopologyProbe, "observe", AsyncMock(return_value=_topology())):
            result = runner.invoke(app, ["topology", "10.0.0.1:6379", "--json"])

        assert result.exit_code == 0
        assert '"role": "leader"' in result.output
        assert '"myself"' in result.output

    def test_unreachable_endpoint(self):
        error = ProbeUnreachableError(["10.0.0.1:6379"])
        with patch.object(TopologyProbe, "observe", AsyncMock(side_effect=error)):
            result = runner.invoke(app, ["topology", "10.0.0.1:6379"])

        assert result.exit_code == 1
        assert "No cluster endpoint reachable" in result.output


class TestDelete:
    """Tests for the delete command."""

    def test_delete_with_finalizer_marks_object(self, tmp_path):
        (tmp_path / "cache.yaml").write_text(
            MANIFEST.replace("  name: cache\n", "  name: cache\n  finalizers: [redisClusterFinalizer]\n")
        )

        result = runner.invoke(app, ["delete", "cache", "--manifests", str(tmp_path)])

        assert result.exit_code == 0
        assert "Deletion of cache requested" in result.output
        assert "deletionTimestamp" in (tmp_path / "cache.yaml").read_text()

    def test_delete_without_finalizer_removes_manifest(self, tmp_path):
        (tmp_path / "cache.yaml").write_text(MANIFEST)

        result = runner.invoke(app, ["delete", "cache", "--manifests", str(tmp_path)])

        assert result.exit_code == 0
        assert "Deleted cache" in result.output
        assert not (tmp_path / "cache.yaml").exists()

    def test_delete_unknown(self, tmp_path):
        result = runner.invoke(app, ["delete", "absent", "--manifests", str(tmp_path)])

        assert result.exit_code == 1


class TestRun:
    """Tests for the run command's argument handling."""

    def test_missing_manifest_directory(self, tmp_path):
        result = runner.invoke(app, ["run", "--manifests", str(tmp_path / "nope")])

        assert result.exit_code == 1
        assert "is not a directory" in " ".join(result.output.split())

    def test_unknown_subject(self, tmp_path):
        result = runner.invoke(app, ["run", "--manifests", str(tmp_path), "--subject", "memcached"])

        assert result.exit_code == 1
        assert "Unknown subject" in result.output

    def test_starts_controller_loop(self, tmp_path):
        with patch("operator_core.cli.run.ControllerLoop") as loop_cls:
            loop_cls.return_value.run = AsyncMock()
            result = runner.invoke(
                app, ["run", "--manifests", str(tmp_path), "--workers", "2"]
            )

        assert result.exit_code == 0
        assert loop_cls.call_args.kwargs["workers"] == 2
        loop_cls.return_value.run.assert_awaited_once()


class TestSubjectFactory:
    """Tests for building the reconciler from settings."""

    def test_failover_settings_reach_executor(self, tmp_path):
        settings = OperatorSettings(
            manifests_dir=tmp_path, failover_flush_data=True, failover_hard_reset=True
        )

        reconciler, store = create_reconciler("redis-cluster", settings)

        assert store.directory == tmp_path
        assert reconciler.failover.flush_data is True
        assert reconciler.failover.hard_reset is True
