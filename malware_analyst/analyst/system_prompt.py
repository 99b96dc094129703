"""
Analyst prompts and the extraction schema shared by every provider.

Two layers:
1. Role framing + instructions (extraction and rule synthesis)
2. Output contract (JSON Schema for the `extract_malware_info` tool)
"""

EXTRACT_FUNCTION_NAME = "extract_malware_info"
EXTRACT_FUNCTION_DESCRIPTION = "Extract structured threat intelligence from a malware sandbox report."

EXTRACTION_SYSTEM_PROMPT = "You are a helpful assistant that uses tools to extract information."

EXTRACTION_INSTRUCTIONS = """\
Analyze the following malware sandbox report. Your role is a senior malware reverse engineer.
{directive}
Make sure the result is precise and comprehensive.

---BEGIN REPORT---
{report}
---END REPORT---"""

# Providers with schema-constrained generation get the schema directly;
# tool-calling providers are told to call the function.
SCHEMA_DIRECTIVE = "Extract the key information and structure it according to the provided JSON schema."
TOOL_DIRECTIVE = f"Call the '{EXTRACT_FUNCTION_NAME}' function to extract and structure the key information."

RULE_SYSTEM_PROMPT = "You are a helpful assistant that only generates YARA code."

RULE_INSTRUCTIONS = """\
Based on the following malware analysis, generate one simple but effective YARA rule.
The rule must be named "{rule_name}".
Include a description taken from the analysis summary in the meta section, and set the author to "{author}".
The strings section should focus on the most distinctive indicators provided.

Analysis summary: {summary}
Key indicators:
{indicators}

Generate only the YARA rule code, without any explanation or markdown formatting."""


def _string_list(description: str) -> dict:
    return {"type": "array", "items": {"type": "string"}, "description": description}


ANALYSIS_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "malware_family_guess": {
            "type": "string",
            "description": "A plausible malware family guess (e.g. 'Zeus', 'WannaCry', 'Unknown Dropper').",
        },
        "summary": {
            "type": "string",
            "description": "A brief, high-level summary of the malware's purpose and main behavior.",
        },
        "key_behaviors": {
            "type": "object",
            "properties": {
                "file_system": _string_list("Behavior related to creating, deleting or modifying files."),
                "registry": _string_list("Behavior related to creating, deleting or modifying Windows registry entries."),
                "network": _string_list("Network behavior such as DNS queries, IP connections and HTTP requests."),
            },
            "required": ["file_system", "registry", "network"],
        },
        "mitre_attack_techniques": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "technique_id": {
                        "type": "string",
                        "description": "MITRE ATT&CK technique ID (e.g. T1059.001).",
                    },
                    "technique_name": {"type": "string", "description": "Technique name."},
                    "description": {
                        "type": "string",
                        "description": "How the malware's behavior maps to this technique.",
                    },
                },
                "required": ["technique_id", "technique_name", "description"],
            },
        },
        "indicators_of_compromise": {
            "type": "object",
            "properties": {
                "files": _string_list("Paths or names of files created or dropped."),
                "domains": _string_list("Domains contacted by the malware."),
                "ips": _string_list("IP addresses contacted by the malware."),
                "registry_keys": _string_list("Registry keys created or modified."),
            },
            "required": ["files", "domains", "ips", "registry_keys"],
        },
    },
    "required": [
        "malware_family_guess",
        "summary",
        "key_behaviors",
        "mitre_attack_techniques",
        "indicators_of_compromise",
    ],
}
