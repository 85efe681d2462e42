"""
Unit tests for the shared ECS task roles.
"""
from aws_cdk import aws_ecr as ecr, aws_logs as logs
from aws_cdk.assertions import Match, Template

from game_servers.common_roles import CommonRoles


def statement(**kwargs):
    return Match.object_like({"Effect": "Allow", **kwargs})


def test_task_role_writes_metrics(stack):
    CommonRoles.task_role(stack, "Game")
    template = Template.from_stack(stack)

    template.has_resource_properties("AWS::IAM::Role", {
        "RoleName": "GameTaskRole",
        "Description": "Write CloudWatch metrics",
        "AssumeRolePolicyDocument": {
            "Statement": [Match.object_like({
                "Principal": {"Service": "ecs-tasks.amazonaws.com"}
            })]
        }
    })
    template.has_resource_properties("AWS::IAM::Policy", {
        "PolicyDocument": {
            "Statement": Match.array_with([
                statement(Action="cloudwatch:PutMetricData", Resource="*"),
                statement(
                    Action=["kms:Decrypt", "secretsmanager:GetSecretValue", "ssm:GetParameters"],
                    Resource="*"
                )
            ])
        }
    })


def test_execution_role_without_repository_pulls_anything(stack):
    log_group = logs.LogGroup(stack, "Logs")
    CommonRoles.task_execution_role(stack, "Game", log_group=log_group)
    template = Template.from_stack(stack)

    template.has_resource_properties("AWS::IAM::Role", {
        "RoleName": "GameTaskExecutionRole"
    })
    template.has_resource_properties("AWS::IAM::Policy", {
        "PolicyDocument": {
            "Statement": Match.array_with([
                statement(Action=["logs:CreateLogStream", "logs:PutLogEvents"]),
                statement(
                    Action=[
                        "ecr:BatchCheckLayerAvailability",
                        "ecr:GetDownloadUrlForLayer",
                        "ecr:BatchGetImage"
                    ],
                    Resource="*"
                ),
                statement(Action="ecr:GetAuthorizationToken", Resource="*")
            ])
        }
    })


def test_execution_role_scoped_to_repository(stack):
    log_group = logs.LogGroup(stack, "Logs")
    repository = ecr.Repository(stack, "Repository")
    CommonRoles.task_execution_role(stack, "Game", log_group=log_group, repository=repository)
    template = Template.from_stack(stack)

    repository_id = stack.get_logical_id(repository.node.default_child)
    template.has_resource_properties("AWS::IAM::Policy", {
        "PolicyDocument": {
            "Statement": Match.array_with([
                statement(
                    Action=Match.array_with(["ecr:BatchGetImage"]),
                    Resource={"Fn::GetAtt": [repository_id, "Arn"]}
                )
            ])
        }
    })
