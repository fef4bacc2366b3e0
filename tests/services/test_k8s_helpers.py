"""
Unit tests for image templates and manifest builders.
"""

import pytest

pytest.importorskip("kubernetes")

from podmanager.services.kubernetes.helpers import (
    CONTAINER_PORT_NAME,
    IDLE_SHELL_COMMAND,
    JUPYTER_ARGS,
    POD_NAME_LABEL,
    create_pod_manifest,
    create_service_manifest,
    get_standard_labels,
    resolve_image_template,
)


@pytest.mark.unit
class TestImageTemplates:

    def test_jupyter_untagged_gets_latest(self):
        template = resolve_image_template("jupyter/base-notebook")

        assert template.image == "jupyter/base-notebook:latest"
        assert template.command is None
        assert template.args == JUPYTER_ARGS
        assert template.port == 8888

    def test_jupyter_tagged_kept(self):
        template = resolve_image_template("jupyter/scipy-notebook:2024-01-01")

        assert template.image == "jupyter/scipy-notebook:2024-01-01"

    def test_ubuntu_untagged_defaults_to_2204(self):
        template = resolve_image_template("ubuntu")

        assert template.image == "ubuntu:22.04"
        assert template.command == IDLE_SHELL_COMMAND
        assert template.args is None
        assert template.port == 80

    def test_ubuntu_tagged_kept(self):
        assert resolve_image_template("ubuntu:20.04").image == "ubuntu:20.04"

    def test_other_images_idle_on_8888(self):
        template = resolve_image_template("python:3.12")

        assert template.image == "python:3.12"
        assert template.command == IDLE_SHELL_COMMAND
        assert template.port == 8888

    def test_templates_do_not_share_lists(self):
        first = resolve_image_template("ubuntu")
        first.command.append("--oops")

        assert resolve_image_template("ubuntu").command == IDLE_SHELL_COMMAND


@pytest.mark.unit
@pytest.mark.kubernetes
class TestManifests:

    def test_labels(self):
        assert get_standard_labels("p1", "user-pod") == {"app": "user-pod", POD_NAME_LABEL: "p1"}

    def test_pod_manifest(self):
        template = resolve_image_template("ubuntu")
        pod = create_pod_manifest("p1", "test-ns", template, app_label="user-pod")

        assert pod.metadata.name == "p1"
        assert pod.metadata.namespace == "test-ns"
        assert pod.metadata.labels == {"app": "user-pod", POD_NAME_LABEL: "p1"}
        assert pod.spec.restart_policy == "Never"

        container = pod.spec.containers[0]
        assert container.name == "main"
        assert container.image == "ubuntu:22.04"
        assert container.ports[0].container_port == 80
        assert container.ports[0].name == CONTAINER_PORT_NAME

    def test_service_manifest(self):
        service = create_service_manifest("p1", "test-ns", 8888, app_label="user-pod-service")

        assert service.metadata.name == "service-p1"
        assert service.metadata.labels["app"] == "user-pod-service"
        assert service.spec.type == "NodePort"
        assert service.spec.selector == {POD_NAME_LABEL: "p1"}
        assert service.spec.ports[0].port == 8888
        assert service.spec.ports[0].target_port == 8888
        assert service.spec.ports[0].node_port is None
