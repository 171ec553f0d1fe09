"""Built-in servers and workflows registered by the orchestrator."""

from ..models import RateLimitConfig, ServerConfig, WorkflowConfig

DEFAULT_SERVERS: tuple[ServerConfig, ...] = (
    ServerConfig(
        name="neon",
        description="Serverless Postgres",
        timeout=10.0,
        retries=3,
        rate_limit=RateLimitConfig(requests=100, window=60.0),
    ),
    ServerConfig(
        name="railway",
        description="Deployment platform",
        timeout=30.0,
        retries=2,
        rate_limit=RateLimitConfig(requests=50, window=60.0),
    ),
    ServerConfig(
        name="claude-flow",
        description="Agent swarm platform",
        timeout=60.0,
        retries=3,
        rate_limit=RateLimitConfig(requests=200, window=60.0),
    ),
    ServerConfig(
        name="ruv-swarm",
        description="Agent swarm platform",
        timeout=45.0,
        retries=2,
        rate_limit=RateLimitConfig(requests=150, window=60.0),
    ),
)

# Server names whose API keys are read from the environment
SERVER_KEY_ENV_VARS: dict[str, str] = {
    "neon": "NEON_API_KEY",
    "railway": "RAILWAY_TOKEN",
    "claude-flow": "CLAUDE_FLOW_KEY",
    "ruv-swarm": "RUV_SWARM_KEY",
}


def default_workflows() -> list[WorkflowConfig]:
    """Build the built-in workflow definitions.

    Returns:
        Fresh WorkflowConfig objects (safe to mutate)
    """
    property_management = WorkflowConfig.model_validate(
        {
            "id": "property_management",
            "name": "Property Management Workflow",
            "description": "Complete property management including analysis, reports, and optimization",
            "steps": [
                {
                    "id": "init_swarm",
                    "name": "Initialize AI Swarm",
                    "server": "claude-flow",
                    "tool": "swarm_init",
                    "arguments": {"topology": "hierarchical", "maxAgents": 6, "strategy": "adaptive"},
                },
                {
                    "id": "analyze_properties",
                    "name": "Analyze Property Data",
                    "server": "neon",
                    "tool": "run_sql",
                    "arguments": {
                        "projectId": "${metadata.projectId}",
                        "sql": "SELECT * FROM properties WHERE owner_id = ${metadata.ownerId}",
                    },
                    "dependsOn": ["init_swarm"],
                },
                {
                    "id": "generate_report",
                    "name": "Generate Property Report",
                    "server": "claude-flow",
                    "tool": "task_orchestrate",
                    "arguments": {
                        "task": "Generate comprehensive property report with insights",
                        "data": "${results.analyze_properties}",
                    },
                    "dependsOn": ["analyze_properties"],
                },
                {
                    "id": "deploy_updates",
                    "name": "Deploy System Updates",
                    "server": "railway",
                    "tool": "deployment_trigger",
                    "arguments": {
                        "projectId": "${metadata.railwayProjectId}",
                        "serviceId": "${metadata.serviceId}",
                        "environmentId": "${metadata.environmentId}",
                        "commitSha": "${metadata.commitSha}",
                    },
                    "dependsOn": ["generate_report"],
                },
            ],
            "timeout": 600.0,
            "maxConcurrency": 3,
        }
    )

    ocr_processing = WorkflowConfig.model_validate(
        {
            "id": "ocr_processing",
            "name": "OCR Document Processing",
            "description": "Process PDF documents with OCR and extract reservation data",
            "steps": [
                {
                    "id": "extract_text",
                    "name": "Extract Text from PDF",
                    "server": "claude-flow",
                    "tool": "task_orchestrate",
                    "arguments": {"task": "Extract text from PDF using OCR", "file": "${metadata.pdfFile}"},
                },
                {
                    "id": "analyze_content",
                    "name": "Analyze Document Content",
                    "server": "claude-flow",
                    "tool": "neural_patterns",
                    "arguments": {
                        "action": "analyze",
                        "pattern": "reservation_data",
                        "content": "${results.extract_text}",
                    },
                    "dependsOn": ["extract_text"],
                },
                {
                    "id": "store_data",
                    "name": "Store Extracted Data",
                    "server": "neon",
                    "tool": "run_sql",
                    "arguments": {
                        "projectId": "${metadata.projectId}",
                        "sql": (
                            "INSERT INTO reservations (property_id, guest_name, check_in, check_out) "
                            "VALUES (${results.analyze_content.property_id}, ${results.analyze_content.guest_name}, "
                            "${results.analyze_content.check_in}, ${results.analyze_content.check_out})"
                        ),
                    },
                    "dependsOn": ["analyze_content"],
                },
            ],
            "timeout": 300.0,
            "maxConcurrency": 2,
        }
    )

    return [property_management, ocr_processing]
