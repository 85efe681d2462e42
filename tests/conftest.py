"""
Pytest configuration and fixtures for the game server stacks.
"""
import pytest
import aws_cdk as cdk

from game_servers import GameServersConfig, Networking


@pytest.fixture
def app():
    return cdk.App()


@pytest.fixture
def stack(app):
    """Empty parent stack to hang constructs and nested stacks off"""
    return cdk.Stack(app, "TestStack")


@pytest.fixture
def network(stack):
    return Networking(stack, "Network")


@pytest.fixture
def env_file(tmp_path):
    path = tmp_path / "server.env"
    path.write_text("EULA=TRUE\nMAX_PLAYERS=10\n")
    return str(path)


@pytest.fixture
def config(env_file):
    return GameServersConfig(environment_file=env_file)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every setting read by GameServersConfig.from_env"""
    for name in (
        "PROJECT_NAME", "ENVIRONMENT", "AWS_REGION", "MINECRAFT_ENV_FILE",
        "ECS_CPU", "ECS_MEMORY", "IMAGE_TAG", "DOCKER_IMAGE",
        "CREATE_LOAD_BALANCER", "HEALTH_CHECK_ALLOWED_IP",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def dashboard_body():
    """Reads a template's dashboard JSON, dropping the token parts of its Fn::Join"""
    def read(template):
        (dashboard,) = template.find_resources("AWS::CloudWatch::Dashboard").values()
        body = dashboard["Properties"]["DashboardBody"]
        if isinstance(body, dict):
            return "".join(part for part in body["Fn::Join"][1] if isinstance(part, str))
        return body
    return read
