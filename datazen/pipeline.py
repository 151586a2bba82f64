# datazen/pipeline.py
from langgraph.graph import StateGraph, END
from typing import TypedDict, Optional, List
from datetime import datetime
import logging

from datazen.config import Config, get_config
from datazen.models import CleaningReport, DataAnalysis, Table

logger = logging.getLogger(__name__)


class PipelineState(TypedDict, total=False):
    """State shared across all workflow nodes"""
    # Input
    data_path: Optional[str]
    clean: bool
    export_format: Optional[str]
    output_dir: Optional[str]

    # Data
    raw_table: Optional[Table]
    cleaned_table: Optional[Table]
    cleaning_report: Optional[CleaningReport]
    analysis: Optional[DataAnalysis]
    export_paths: List[str]

    # Workflow
    current_step: str
    next_action: str
    errors: List[str]
    execution_log: List[str]


class DataQualityPipeline:
    def __init__(self, config: Optional[Config] = None):
        """Initialize the data-quality workflow"""
        self.config = config or get_config()

        # No checkpointer: runs are not persisted
        self.graph = self._build_graph()
        self.compiled_graph = self.graph.compile()

        logger.info("Data quality pipeline initialized successfully")

    def _build_graph(self) -> StateGraph:
        """Build the LangGraph workflow"""
        from datazen.agents.data_agent import DataIngestionAgent
        from datazen.agents.cleaning_agent import DataCleaningAgent
        from datazen.agents.analysis_agent import DataAnalysisAgent
        from datazen.agents.export_agent import ExportAgent

        data_agent = DataIngestionAgent(self.config.data_validation)
        cleaning_agent = DataCleaningAgent(self.config.cleaning)
        analysis_agent = DataAnalysisAgent()
        export_agent = ExportAgent(self.config.export)

        workflow = StateGraph(PipelineState)

        workflow.add_node("data_ingestion", data_agent.process)
        workflow.add_node("data_cleaning", cleaning_agent.clean_data)
        workflow.add_node("data_analysis", analysis_agent.analyze)
        workflow.add_node("export", export_agent.export)

        workflow.set_entry_point("data_ingestion")

        workflow.add_conditional_edges(
            "data_ingestion",
            self._route_after_ingestion,
            {
                "clean": "data_cleaning",
                "analyze": "data_analysis",
                "error": END
            }
        )

        workflow.add_conditional_edges(
            "data_cleaning",
            self._route_after_cleaning,
            {
                "analyze": "data_analysis",
                "error": END
            }
        )

        workflow.add_conditional_edges(
            "data_analysis",
            self._route_after_analysis,
            {
                "export": "export",
                "end": END
            }
        )

        workflow.add_edge("export", END)

        return workflow

    def _route_after_ingestion(self, state: PipelineState) -> str:
        """Route based on ingestion outcome and the cleaning flag"""
        if state.get("next_action") == "error":
            return "error"
        return "clean" if state.get("clean", True) else "analyze"

    def _route_after_cleaning(self, state: PipelineState) -> str:
        return "error" if state.get("next_action") == "error" else "analyze"

    def _route_after_analysis(self, state: PipelineState) -> str:
        """Export only when a format was requested and analysis succeeded"""
        if state.get("next_action") == "export":
            return "export"
        return "end"

    def run_pipeline(self,
                     data_path: str,
                     clean: bool = True,
                     export_format: Optional[str] = None,
                     output_dir: Optional[str] = None) -> dict:
        """Execute the complete workflow for one file"""
        initial_state = self._initial_state(clean, export_format, output_dir)
        initial_state["data_path"] = data_path
        return self._invoke(initial_state, data_path)

    def run_table(self,
                  table: Table,
                  clean: bool = True,
                  export_format: Optional[str] = None,
                  output_dir: Optional[str] = None) -> dict:
        """Execute the workflow for a table that is already in memory"""
        initial_state = self._initial_state(clean, export_format, output_dir)
        initial_state["raw_table"] = table
        return self._invoke(initial_state, table.source_name)

    def _initial_state(self, clean: bool, export_format: Optional[str], output_dir: Optional[str]) -> PipelineState:
        if export_format is not None:
            export_format = export_format.lower()
            if export_format not in self.config.export.SUPPORTED_EXPORT_FORMATS:
                raise ValueError(f"Unsupported export format: {export_format}")

        return PipelineState(
            clean=clean,
            export_format=export_format,
            output_dir=output_dir,
            current_step="initialization",
            next_action="data_ingestion",
            errors=[],
            execution_log=[f"Pipeline started at {datetime.now()}"]
        )

    def _invoke(self, initial_state: PipelineState, run_name: str) -> dict:
        logger.info(f"Starting pipeline for: {run_name}")

        try:
            final_state = self.compiled_graph.invoke(initial_state)
        except Exception as e:
            logger.error(f"Pipeline failed for {run_name}: {str(e)}")
            return {
                "status": "failed",
                "error": str(e),
                "source_name": run_name
            }

        final_state = dict(final_state)
        final_state["execution_log"] = final_state.get("execution_log", []) + [
            f"Pipeline completed at {datetime.now()}"
        ]
        final_state["status"] = "failed" if final_state.get("errors") else "completed"

        logger.info(f"Pipeline finished for {run_name}: {final_state['status']}")
        return final_state
