"""Static hint catalogue.

Pure data consumed by ``octoresearch.services.hints``. Tool hints are keyed
by backend kind and outcome status, intent guidance by canonical research
goal. Adding guidance means editing these tables, not the composer.
"""

from __future__ import annotations

from octoresearch.core.types import BackendKind, ErrorKind, OutcomeStatus, ResearchGoal

_K = BackendKind
_S = OutcomeStatus
_G = ResearchGoal

TOOL_HINTS: dict[BackendKind, dict[OutcomeStatus, tuple[str, ...]]] = {
    _K.GITHUB_SEARCH_CODE: {
        _S.HAS_RESULTS: (
            "Refine next queries using domain-specific terms and synonyms from researchGoal",
            "Use matchString with github_fetch_content for precise snippets around matches",
            "Switch between match='file' (content search) and match='path' (file discovery) to triangulate",
            "Use github_view_repo_structure to locate entry points, config files, and documentation",
            "Narrow by directory and extension once patterns emerge",
        ),
        _S.EMPTY: (
            "Rephrase using broader, higher-level terms and synonyms",
            "Switch to match='path' to discover relevant directories and filenames first",
            "Reduce keyword count to avoid over-constrained AND logic",
            "Drop owner/repo filters to discover cross-repo patterns, then narrow back",
            "Search in examples/tests directories to find usage patterns",
        ),
        _S.ERROR: (
            "Verify search parameters are valid and not overly restrictive",
            "Try removing filters (extension, path) to broaden search scope",
            "Check repository exists and is accessible if using owner/repo filters",
        ),
    },
    _K.GITHUB_SEARCH_REPOSITORIES: {
        _S.HAS_RESULTS: (
            "Map structure with github_view_repo_structure, then deep-dive with github_search_code",
            "Sort by stars for mature repos, or updated for active development",
            "Fetch README with github_fetch_content to validate fit and understand purpose",
            "Prefer implementation repos over awesome-lists and templates",
        ),
        _S.EMPTY: (
            "Separate keywordsToSearch and topicsToSearch into distinct queries",
            "Relax stars, size or date filters if they are too restrictive",
            "Add language or framework terms derived from reasoning and researchGoal",
            "Remove owner restriction to explore the broader ecosystem",
        ),
        _S.ERROR: (
            "Verify owner exists if using owner filter",
            "Try broader search terms if using very specific topics",
            'Check sort parameter is valid: "stars", "forks", "updated", or "best-match"',
        ),
    },
    _K.GITHUB_FETCH_CONTENT: {
        _S.HAS_RESULTS: (
            "Prefer partial reads (startLine/endLine or matchString) over fullContent",
            "Set minified=false for JSON, Markdown or YAML when readability matters",
            "Follow imports and exports to queue the next structure or code search queries",
        ),
        _S.EMPTY: (
            "Validate path via github_view_repo_structure or github_search_code with match='path'",
            "Omit branch for auto-detection or try main, master or develop explicitly",
            "Verify case-sensitive paths and the repository layout",
        ),
        _S.ERROR: (
            "Verify repository owner, name, and file path are correct",
            'Check that the branch exists (try "main" or "master")',
            "Use github_view_repo_structure first to find correct file paths",
        ),
    },
    _K.GITHUB_VIEW_REPO_STRUCTURE: {
        _S.HAS_RESULTS: (
            "Turn discovered paths into targeted github_search_code queries with extension filters",
            "Identify entry points, configs, and docs to guide next content fetches",
            "Focus on source directories for implementations and examples for usage",
        ),
        _S.EMPTY: (
            "Start at repo root with depth=1, then increase depth as needed",
            "Omit branch to auto-detect the default branch",
            "For monorepos, explore packages, apps or services directories",
        ),
        _S.ERROR: (
            "Verify repository owner and name are correct",
            'Check that the branch exists (try "main" or "master")',
            "Ensure you have access to the repository",
        ),
    },
    _K.GITHUB_SEARCH_PULL_REQUESTS: {
        _S.HAS_RESULTS: (
            'Filter state="closed" with merged=true for proven implementations',
            "Enable withContent for diffs or withComments for discussion (both are token-expensive)",
            "Turn changed filenames and functions into targeted github_search_code queries",
        ),
        _S.EMPTY: (
            "Use prNumber with owner and repo when the PR number is known",
            "Relax filters progressively: remove state or merged constraints",
            "Try broader query terms or remove repo/owner constraints",
        ),
        _S.ERROR: (
            "Check your query parameters and try again",
            "Verify repository access and query syntax",
            "Try simplifying your search filters",
        ),
    },
    _K.LOCAL_SEARCH_CODE: {
        _S.HAS_RESULTS: (
            "Next: local_fetch_content for context (prefer matchString)",
            "Also search imports, usages and definitions with local_search_code",
        ),
        _S.EMPTY: (
            "No matches. Broaden the path or use fixedString for literal text",
            "Unsure of paths? Use local_view_structure first",
        ),
        _S.ERROR: (
            "Check the pattern is a valid regular expression, or set fixedString=true",
            "Locate directories with local_view_structure",
        ),
    },
    _K.LOCAL_VIEW_STRUCTURE: {
        _S.HAS_RESULTS: (
            "Next: local_search_code for patterns inside interesting directories",
            "Drill deeper with depth=2 when needed",
        ),
        _S.EMPTY: (
            "Empty or fully ignored. Use showHidden=true or check the parent directory",
        ),
        _S.ERROR: (
            "Access failed. Check the path is a directory inside the workspace",
        ),
    },
    _K.LOCAL_FETCH_CONTENT: {
        _S.HAS_RESULTS: (
            "Next: trace imports and usages with local_search_code",
            "Open related files (tests, types, implementation) together",
            "Prefer matchString over the full file",
        ),
        _S.EMPTY: (
            "No content. Check the path and line range",
        ),
        _S.ERROR: (
            "Unknown path or match. Locate it with local_find_files or local_search_code",
            "For large files use matchString, startLine/endLine or charLength to paginate",
        ),
    },
    _K.LOCAL_FIND_FILES: {
        _S.HAS_RESULTS: (
            "Found files. Next: local_fetch_content or local_search_code",
            "Use modifiedWithin=\"7d\" to track recent changes",
        ),
        _S.EMPTY: (
            "No matches. Broaden iname, increase maxDepth or relax filters",
            "Or use local_view_structure or local_search_code",
        ),
        _S.ERROR: (
            "Search failed. Check the path is a directory inside the workspace",
        ),
    },
}

# Used when nothing more specific applies to an error.
GENERIC_ERROR_HINTS: tuple[str, ...] = (
    "Validate input parameters (owner, repo, path, branch) for correctness",
    "Retry the operation after a brief delay for transient errors",
    "Check authentication token validity and required scopes",
    "Verify network connectivity and backend status",
    "Check repository visibility (public vs private) and access permissions",
)

ERROR_RECOVERY: dict[ErrorKind, str] = {
    ErrorKind.AUTH: "Authentication required. Check your GitHub token configuration",
    ErrorKind.RATE_LIMITED: "Rate limit exceeded. Wait {seconds} seconds before retrying",
    ErrorKind.TIMEOUT: "Query timed out. Narrow the scope (path, filters, limit) and retry",
    ErrorKind.GENERIC: "Request failed. Check the query parameters and retry",
}

DEFAULT_RETRY_SECONDS = 60

# Refinements of the generic recovery hint by backend status code.
STATUS_RECOVERY: dict[int, str] = {
    403: "Access denied. Check permissions or try public repositories",
    404: "Resource not found. Verify spelling and accessibility",
    413: "Content too large. Request a line range or use matchString",
}

RESEARCH_GUIDANCE: dict[ResearchGoal, dict[OutcomeStatus, tuple[str, ...]]] = {
    _G.DISCOVERY: {
        _S.HAS_RESULTS: (
            "Progressively narrow your search focus based on the most relevant findings",
            "Cross-reference results with related projects to validate approaches and discover alternatives",
        ),
        _S.EMPTY: (
            "Start with broader search terms and gradually refine based on initial discoveries",
            "Explore related technologies, frameworks, or problem domains for comprehensive coverage",
        ),
    },
    _G.CODE_GENERATION: {
        _S.HAS_RESULTS: (
            "Study complete implementations to understand architectural decisions and design patterns",
            "Look for documentation and examples to understand intended usage and best practices",
        ),
        _S.EMPTY: (
            "Search for working examples and reference implementations in popular repositories",
            "Look for official documentation, tutorials, or starter templates",
        ),
    },
    _G.DEBUGGING: {
        _S.HAS_RESULTS: (
            "Search for related issues and pull requests to understand common problems and their solutions",
            "Look for test cases that demonstrate the expected vs actual behavior",
        ),
        _S.EMPTY: (
            "Try searching for error messages, symptoms, or related problem descriptions",
            "Look for issues in the main project repository or related dependencies",
        ),
    },
    _G.CODE_ANALYSIS: {
        _S.HAS_RESULTS: (
            "Examine the complete file structure and dependencies to understand the architecture",
            "Analyze patterns, conventions, and coding standards used across the codebase",
        ),
        _S.EMPTY: (
            "Start with repository structure exploration to understand the overall architecture",
            "Look for documentation that explains the codebase organization and design decisions",
        ),
    },
    _G.CODE_REVIEW: {
        _S.HAS_RESULTS: (
            "Examine pull request discussions to understand review criteria and common feedback",
            "Check for security practices, error handling, and performance considerations",
        ),
        _S.EMPTY: (
            "Search for contribution guidelines and code review standards in the repository",
            "Look for examples of well-reviewed pull requests to understand quality expectations",
        ),
    },
    _G.CODE_OPTIMIZATION: {
        _S.HAS_RESULTS: (
            "Analyze performance-critical code sections and optimization techniques used",
            "Look for benchmarks, profiling results, and performance-related discussions",
        ),
        _S.EMPTY: (
            "Search for performance-related issues, optimizations, and benchmark comparisons",
            "Look for profiling tools and performance testing approaches used in similar projects",
        ),
    },
    _G.CONTEXT_GENERATION: {
        _S.HAS_RESULTS: (
            "Gather comprehensive context from documentation, examples, and real-world usage",
            "Build understanding of the problem domain, use cases, and solution approaches",
        ),
        _S.EMPTY: (
            "Start with official documentation and getting-started guides for foundational context",
            "Look for tutorials, blog posts, and community discussions for practical insights",
        ),
    },
    _G.DOCS_GENERATION: {
        _S.HAS_RESULTS: (
            "Study existing documentation patterns, structure, and writing style",
            "Look for examples of clear API documentation and usage guides",
        ),
        _S.EMPTY: (
            "Search for well-documented projects in the same domain for inspiration",
            "Look for documentation tools and templates used by successful projects",
        ),
    },
}

# Batch-level guidance, emitted once per status present in a batch.
STATUS_HINTS: dict[OutcomeStatus, tuple[str, ...]] = {
    _S.HAS_RESULTS: (
        "Analyze top results in depth before expanding search",
        "Cross-reference findings across multiple sources",
    ),
    _S.EMPTY: (
        "Try broader search terms or related concepts",
        "Use functional descriptions that focus on what the code accomplishes",
    ),
    _S.ERROR: (
        "Review per-query hints for recovery steps",
        "Fix failing queries and resubmit only those",
    ),
}

EMPTY_QUERY_VALIDATION_HINTS: tuple[str, ...] = (
    "Queries array is required and cannot be empty",
    "Provide at least one valid query with required parameters",
)
