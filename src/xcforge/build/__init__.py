"""Build, assembly and orchestration for xcforge.

Import from the submodules directly, e.g.
`from xcforge.build.orchestrator import PipelineOrchestrator`.
"""
